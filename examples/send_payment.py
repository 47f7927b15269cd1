"""
Example: Quote and Send

Quotes a payment through the wallet's path-finder, then sends it.

Reads ILPWALLET_ADDRESS and ILPWALLET_PASSWORD from the environment.
Usage: python examples/send_payment.py <destination account> <destination amount>
"""

import asyncio
import sys

from ilpwallet import PaymentEvent, WalletClient, WalletClientError


async def main(destination: str, amount: str) -> None:
    print("=== ilpwallet Quote & Send ===\n")

    async with WalletClient() as client:
        print(f"✅ Connected as {await client.get_account()}")

        # How much would it cost right now?
        source_amount = await client.convert_amount(
            {"destinationAccount": destination, "destinationAmount": amount}
        )
        print(f"💱 {amount} to {destination} costs about {source_amount}")

        payment = client.payment({"destinationAccount": destination, "destinationAmount": amount})
        payment.on(PaymentEvent.QUOTE, lambda params: print(f"📋 Quoted {params.source_amount}"))
        payment.on(PaymentEvent.SENT, lambda result: print(f"📤 Sent as {result.payment_id}"))

        try:
            await payment.quote()
            await payment.send()
        except WalletClientError as e:
            print(f"❌ Payment failed: {e}")
            return

        print(f"✅ Wallet answered: {payment.result.data}")

    print("\n=== Example Complete ===")


if __name__ == "__main__":
    if len(sys.argv) != 3:
        sys.exit(__doc__)
    asyncio.run(main(sys.argv[1], sys.argv[2]))
