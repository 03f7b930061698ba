"""Privileges Extender - keeps a time-bounded admin grant alive.

Periodically drives an external privilege-control tool (such as SAP
Privileges' PrivilegesCLI) so that a user's elevation lasts for the
duration they chose, re-elevating when the tool's own timeout would
otherwise drop it and revoking once the chosen duration runs out.

Core pieces:
    ElevationSession tracks the grant, PrivilegeGateway runs the tool,
    ControlLoop reconciles the two on a periodic tick, and SessionHost
    owns one of each and exposes the commands.

Example:
    >>> from privileges_extender.server import main
    >>> main()
"""

__version__ = "0.1.0"
__license__ = "MIT"

__all__ = ["__version__"]
