"""Derived state.

Everything here is a pure function of the movement history; nothing in this
package reads or writes the store.
"""

from portaria.state.projection import derived_status, open_departures, sort_chronologically, vehicle_statuses

__all__ = ["derived_status", "open_departures", "sort_chronologically", "vehicle_statuses"]
