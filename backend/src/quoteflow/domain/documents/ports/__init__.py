from .persistence_port import DocumentStorePort, Entity
from .delivery_port import DeliveryPort, DeliveryReceipt, ExportedFile, OutboundMessage

__all__ = [
    "DocumentStorePort",
    "Entity",
    "DeliveryPort",
    "DeliveryReceipt",
    "ExportedFile",
    "OutboundMessage",
]
