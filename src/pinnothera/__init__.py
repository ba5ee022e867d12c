"""A dead simple Kubernetes-native SNS/SQS configurator."""
