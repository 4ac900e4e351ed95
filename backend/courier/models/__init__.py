from .accounts import User, UserSession, ROLE_CUSTOMER, ROLE_ADMINISTRATOR, ROLES
from .items import Item, ItemSequence, ITEM_STATE_PENDING_RECEIVING, ITEM_STATE_RECEIVED

__all__ = [
    'User', 'UserSession', 'ROLE_CUSTOMER', 'ROLE_ADMINISTRATOR', 'ROLES',
    'Item', 'ItemSequence', 'ITEM_STATE_PENDING_RECEIVING', 'ITEM_STATE_RECEIVED',
]
