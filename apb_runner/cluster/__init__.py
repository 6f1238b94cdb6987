"""Cluster access for the APB runner.

This module provides kubectl-backed access to the Kubernetes cluster:
- Async kubectl command execution with timeouts
- Namespace state queries
- Error classification for failed kubectl calls
"""
