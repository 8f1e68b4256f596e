"""
Development stub of the remote evaluation API.
"""
