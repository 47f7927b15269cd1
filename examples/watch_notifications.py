"""
Example: Watch Payment Notifications

Prints incoming and outgoing payments, with transfer details, until Ctrl+C.

Reads ILPWALLET_ADDRESS and ILPWALLET_PASSWORD from the environment.
"""

import asyncio

from ilpwallet import WalletClient, WalletEvent


async def main() -> None:
    client = WalletClient(log_level="DEBUG")

    client.on(WalletEvent.INCOMING, lambda n: print(f"📥 {n.destination_amount} from {n.source_account}"))
    client.on(WalletEvent.OUTGOING, lambda n: print(f"📤 {n.source_amount} to {n.destination_account}"))
    client.on(
        WalletEvent.OUTGOING_FULFILLMENT,
        lambda transfer, fulfillment: print(f"🔓 {transfer.get('id')} fulfilled: {fulfillment}"),
    )
    client.on(WalletEvent.INCOMING_TRANSFER, lambda transfer: print(f"🧾 {transfer}"))
    client.on(WalletEvent.CONNECT, lambda: print("✅ Subscribed, waiting for payments..."))

    try:
        await client.connect()
        await asyncio.Event().wait()
    finally:
        await client.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
