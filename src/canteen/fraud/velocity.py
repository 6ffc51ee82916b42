"""Per-customer order activity used for velocity limits.

Two kinds of record share one aggregate, told apart by their key:

* ``orders_{customer_id}_{date}``: every order of that UTC day with its amount
* ``recent_orders_{customer_id}``: order timestamps of the last half hour

Entries are epoch milliseconds and are pruned by age whenever a record is
written.
"""

import json
from datetime import timedelta

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, Identifier, Text
from protean.utils.globals import current_domain

from canteen.domain import canteen
from canteen.utils.clock import as_utc, utc_now

RECENT_WINDOW = timedelta(minutes=30)


def epoch_ms(moment):
    return int(moment.timestamp() * 1000)


def daily_key(customer_id, moment):
    return f"orders_{customer_id}_{as_utc(moment).date().isoformat()}"


def recent_key(customer_id):
    return f"recent_orders_{customer_id}"


@canteen.aggregate
class VelocityRecord:
    key = Identifier(identifier=True)
    customer_id = Identifier(required=True)
    entries = Text()  # JSON: list of {"timestamp": ms, "amount": float}
    updated_at = DateTime()

    def entry_list(self):
        return json.loads(self.entries) if self.entries else []

    def append(self, timestamp_ms, amount=None, keep_after_ms=None):
        entries = [e for e in self.entry_list() if keep_after_ms is None or e["timestamp"] > keep_after_ms]
        entry = {"timestamp": timestamp_ms}
        if amount is not None:
            entry["amount"] = float(amount)
        entries.append(entry)
        self.entries = json.dumps(entries)

    def count_since(self, since_ms):
        return sum(1 for e in self.entry_list() if e["timestamp"] > since_ms)

    def amount_total(self):
        return sum(e.get("amount", 0.0) for e in self.entry_list())


@canteen.command(part_of="VelocityRecord")
class RecordOrderActivity:
    customer_id = Identifier(required=True)
    amount = Float(required=True, min_value=0.0)
    occurred_at = DateTime()


@canteen.command_handler(part_of=VelocityRecord)
class VelocityRecordHandler:
    @handle(RecordOrderActivity)
    def record_order_activity(self, command):
        now = as_utc(command.occurred_at) or utc_now()
        timestamp = epoch_ms(now)
        repo = current_domain.repository_for(VelocityRecord)

        daily = _get_or_create(repo, daily_key(command.customer_id, now), command.customer_id)
        daily.append(timestamp, amount=command.amount)
        daily.updated_at = now
        repo.add(daily)

        recent = _get_or_create(repo, recent_key(command.customer_id), command.customer_id)
        recent.append(timestamp, keep_after_ms=epoch_ms(now - RECENT_WINDOW))
        recent.updated_at = now
        repo.add(recent)


def _get_or_create(repo, key, customer_id):
    try:
        return repo.get(key)
    except ObjectNotFoundError:
        return VelocityRecord(key=key, customer_id=customer_id, entries=json.dumps([]))
