"""Click sub-commands, registered on the root group in ``agent_rig.main``."""
