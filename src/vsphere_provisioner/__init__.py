"""Terraform-style infrastructure-as-code for VMware vSphere."""

__version__ = "0.1.0"
