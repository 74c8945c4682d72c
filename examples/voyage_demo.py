# examples/voyage_demo.py
# Run with: python examples/voyage_demo.py
#
# One-shot walkthrough: register a vessel and a sailor, log a voyage,
# try a voyage from a non-owner, then audit the vessel history.

import logging
import time
from datetime import datetime, timezone

from maritime_ledger import Denied, MaritimeLedger
from maritime_ledger.verify.verifier import LedgerVerifier

ADMIN = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
VESSEL_OWNER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
SAILOR_WALLET = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"


def main():
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    print("Maritime Ledger - Demo")
    print("=====================================================")

    ledger = MaritimeLedger()
    ledger.subscribe(lambda e: print(f"  [event #{e.seq}] {e.name} {dict(e.payload)}"))

    print("\n[1] Registering Vessel...")
    vessel = ledger.create_vessel(VESSEL_OWNER, "ipfs://QmHashOfVesselMetadata_JSON")
    print(f"  > Token ID:    {vessel.id}")
    print(f"  > Owner Addr:  {vessel.owner}")
    print(f"  > Metadata:    {vessel.metadata_ref}")

    print("\n[2] Registering Sailor...")
    sailor = ledger.create_sailor(SAILOR_WALLET, "ipfs://QmHashOfSailorResume_JSON")
    print(f"  > Token ID:    {sailor.id}")
    print(f"  > Wallet Addr: {sailor.owner}")
    print(f"  > Resume URI:  {sailor.metadata_ref}")

    print("\n[3] Logging Voyage...")
    entry = ledger.log_voyage(
        VESSEL_OWNER,
        vessel.id,
        sailor.id,
        "ipfs://QmProofOfGPS_RealLog",
        "Delivery trip: Floripa to Rio de Janeiro",
        int(time.time()),
    )
    print(f"  > Vessel ID:   {entry.vessel_id}")
    print(f"  > Sailor ID:   {entry.sailor_id}")
    print(f"  > Timestamp:   {entry.timestamp}")
    print(f"  > Proof Hash:  {entry.evidence_ref}")

    print("\n[4] Security Check: Simulating Unauthorized Access...")
    try:
        ledger.log_voyage(ADMIN, vessel.id, sailor.id, "ipfs://HackedData", "Fake Trip", int(time.time()))
        print("CRITICAL ERROR: a non-owner was able to log a trip!")
    except Denied as e:
        print("SECURITY PASSED: Unauthorized attempt blocked.")
        print(f"   Reason: '{e.reason}'")

    print("\n[5] Auditing Vessel History...")
    for voyage in ledger.get_vessel_history(vessel.id):
        date = datetime.fromtimestamp(voyage.timestamp, timezone.utc).isoformat()
        print(f"  > [#{voyage.sequence + 1}] {date} sailor={voyage.sailor_id} {voyage.description}")

    print(f"\n{LedgerVerifier().verify(ledger.snapshot())}")


if __name__ == "__main__":
    main()
