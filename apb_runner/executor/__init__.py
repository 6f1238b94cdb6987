"""Executor module for the APB runner.

This module provides execution of APB actions inside the cluster:
- APB pod submission
- Pod watching until a terminal phase
- Orchestration with guaranteed sandbox teardown
"""
