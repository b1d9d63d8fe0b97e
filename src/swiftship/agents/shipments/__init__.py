"""Shipments agent."""

from __future__ import annotations

from src.swiftship.agents.shipments.agent import ShipmentsAgent, create_shipments_registration

__all__ = ["ShipmentsAgent", "create_shipments_registration"]
