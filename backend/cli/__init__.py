"""Command line client for the Virtual Library service."""
