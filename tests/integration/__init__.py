"""Integration tests for flatc-provisioner."""
