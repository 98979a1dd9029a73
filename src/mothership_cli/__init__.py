"""
mothership_cli - command line access to the Mothership config store.
"""
