"""Dixit App: demo HTTP service and load-test driver for a Kubernetes CI/CD pipeline."""
