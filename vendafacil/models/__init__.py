from vendafacil.models.store import Store
from vendafacil.models.store_member import StoreMember
from vendafacil.models.store_access import StoreAccess
from vendafacil.models.product import Product
from vendafacil.models.customer import Customer
from vendafacil.models.cash_session import CashSession
from vendafacil.models.sale import Sale, SaleItem
from vendafacil.models.comanda import Comanda
from vendafacil.models.order_item import OrderItem
from vendafacil.models.audit_log import AuditLog
from vendafacil.models.store_table import StoreTable
