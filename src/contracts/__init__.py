"""Contracts package.

Public contracts shared by the ingestion API and the notification worker:
feed stream names, the design-details request body and the v1 change-event wire format.
"""
