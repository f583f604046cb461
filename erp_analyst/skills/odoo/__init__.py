"""ERP-backed skills, one class per business question."""

from erp_analyst.skills.odoo.accounting import (
    GetAccountsReceivable,
    GetArAging,
    GetCashBalance,
    GetCustomerBalance,
    GetDebtByCustomer,
    GetInvoicesByCustomer,
    GetOverdueInvoices,
    GetPaymentsReceived,
)
from erp_analyst.skills.odoo.inventory import (
    GetLowStockProducts,
    GetStockValuation,
    GetTopStockProducts,
    SearchProducts,
)
from erp_analyst.skills.odoo.partners import GetNewCustomers, SearchCustomers
from erp_analyst.skills.odoo.purchases import GetPurchaseOrders, GetPurchasesBySupplier, GetVendorBills
from erp_analyst.skills.odoo.sales import (
    CompareSalesPeriods,
    GetPendingSaleOrders,
    GetProductSalesHistory,
    GetSalesByCustomer,
    GetSalesByProduct,
    GetSalesBySeller,
    GetSalesTotal,
    GetTopCustomers,
    GetTopProducts,
)

ODOO_SKILLS = (
    GetSalesTotal,
    GetSalesByCustomer,
    GetSalesByProduct,
    GetSalesBySeller,
    CompareSalesPeriods,
    GetTopCustomers,
    GetTopProducts,
    GetProductSalesHistory,
    GetPendingSaleOrders,
    GetPurchaseOrders,
    GetPurchasesBySupplier,
    GetVendorBills,
    GetAccountsReceivable,
    GetArAging,
    GetOverdueInvoices,
    GetDebtByCustomer,
    GetCustomerBalance,
    GetInvoicesByCustomer,
    GetPaymentsReceived,
    GetCashBalance,
    GetNewCustomers,
    SearchCustomers,
    SearchProducts,
    GetLowStockProducts,
    GetStockValuation,
    GetTopStockProducts,
)

__all__ = [
    "ODOO_SKILLS",
    "GetSalesTotal",
    "GetSalesByCustomer",
    "GetSalesByProduct",
    "GetSalesBySeller",
    "CompareSalesPeriods",
    "GetTopCustomers",
    "GetTopProducts",
    "GetProductSalesHistory",
    "GetPendingSaleOrders",
    "GetPurchaseOrders",
    "GetPurchasesBySupplier",
    "GetVendorBills",
    "GetAccountsReceivable",
    "GetArAging",
    "GetOverdueInvoices",
    "GetDebtByCustomer",
    "GetCustomerBalance",
    "GetInvoicesByCustomer",
    "GetPaymentsReceived",
    "GetCashBalance",
    "GetNewCustomers",
    "SearchCustomers",
    "SearchProducts",
    "GetLowStockProducts",
    "GetStockValuation",
    "GetTopStockProducts",
]
