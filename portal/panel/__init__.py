"""
Hosting panel integration (Pterodactyl Application API).

The panel owns users, nodes, allocations and servers; this package only
references their identifiers and keeps no local state.
"""
