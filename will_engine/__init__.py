"""Will lifecycle engine: check-ins, progress, review gate and scheduler."""
