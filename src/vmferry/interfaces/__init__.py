"""Abstract interfaces vmferry workflows depend on."""
