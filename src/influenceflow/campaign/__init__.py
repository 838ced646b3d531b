"""Campaign registration and funding-gated status changes."""
