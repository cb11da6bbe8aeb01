"""SportSim: AI-backed match simulation and slip strategy service."""
