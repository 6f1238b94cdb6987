"""APB runner.

Runs Ansible Playbook Bundle actions against service instances inside
ephemeral, sandboxed pods and guarantees the sandbox is torn down afterwards.
"""

__version__ = "0.1.0"
