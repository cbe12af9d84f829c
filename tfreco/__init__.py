"""
tfreco - Apply cloud recommendations to Terraform manifests.

This package matches VM rightsizing and IAM recommendations against a
Terraform state snapshot and edits the corresponding declarations in a
directory of manifest files, touching only the lines that need to change.
"""

__version__ = "0.1.0"
__author__ = "tfreco maintainers"
