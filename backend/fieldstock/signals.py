# Overview: In-process signals for inventory events.

"""
Inventory signals.

Notification dispatchers subscribe here; the core performs no delivery.

    from fieldstock.signals import alert_raised

    @alert_raised.connect
    def notify(sender, alert):
        ...

Signals are sent after the row is flushed, inside the caller's unit of work.
Receivers must not commit or roll back the session.
"""

from blinker import Namespace

inventory_signals = Namespace()

# sender: item; kwargs: alert
alert_raised = inventory_signals.signal("alert-raised")

# sender: item; kwargs: transactions (list of rows written by one append)
ledger_appended = inventory_signals.signal("ledger-appended")

# sender: purchase order; kwargs: old_status, new_status
purchase_order_transitioned = inventory_signals.signal("purchase-order-transitioned")
