"""Prefix Organizer — sorts files out of a dump folder by name.

Watches a single dump folder and relocates each new file into the first
configured destination whose filename prefix/suffix rule matches, once
activity in the folder has settled.
"""

__version__ = "1.0.0"
__app_name__ = "Prefix Organizer"
