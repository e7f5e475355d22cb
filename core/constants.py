"""
Core — Constants

Shared constants: pagination limits, audit action names, and document
number prefixes.

@file core/constants.py
"""

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

AUDIT_ACTION_CREATE = 'CREATE'
AUDIT_ACTION_UPDATE = 'UPDATE'
AUDIT_ACTION_DELETE = 'DELETE'
AUDIT_ACTION_SOFT_DELETE = 'SOFT_DELETE'
AUDIT_ACTION_RESTORE = 'RESTORE'
AUDIT_ACTION_STATUS_CHANGE = 'STATUS_CHANGE'
AUDIT_ACTION_LOGIN = 'LOGIN'
AUDIT_ACTION_LOGOUT = 'LOGOUT'
AUDIT_ACTION_LOGIN_FAILED = 'LOGIN_FAILED'

# Document number prefixes
PREFIX_PURCHASE_ORDER = 'PO'
PREFIX_GOODS_RECEIPT = 'GR'
PREFIX_STOCK_MOVEMENT = 'SM'
PREFIX_INVOICE = 'INV'
PREFIX_MEDICAL_RECORD = 'MR'
PREFIX_PRESCRIPTION = 'RX'
PREFIX_PATIENT = 'RM'
PREFIX_MEDICINE = 'MED'
PREFIX_SUPPLIER = 'SUP'
