from .order import OrderTransaction, SwiftOrder, build_order_info

__all__ = ["OrderTransaction", "SwiftOrder", "build_order_info"]
