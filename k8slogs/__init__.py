"""
K8s Logs
Structured search across Kubernetes workload logs
"""

__version__ = "0.1.0"
__author__ = "K8s Logs Team"
__description__ = "Classify and search Kubernetes container logs by keyword and severity"
