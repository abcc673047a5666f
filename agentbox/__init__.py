"""agentbox — provision, launch and supervise external agent processes."""

__version__ = "0.1.0"
