from pizza_service.models.user import Role, RoleGrant, User
from pizza_service.models.session_generation import SessionGeneration
from pizza_service.models.franchise import Franchise, Store
from pizza_service.models.menu_item import MenuItem
from pizza_service.models.order import Order
from pizza_service.models.order_item import OrderItem
