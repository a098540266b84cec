"""FleetWatch: health classification and alerting for sensor unit fleets."""
