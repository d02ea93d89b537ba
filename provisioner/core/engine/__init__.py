"""Convergence engine — graph ordering and the evaluation loop."""
