"""
Keystash: Basic Usage Example

Demonstrates encrypting data, rotating keys, saving the store under a
passphrase, and merging two copies that rotated independently.
"""

import logging
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from keystash import KeyStore, AuthenticationError, UnknownKeyError


def main():
    logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    # Your passphrase, and a context naming what this store is for
    passphrase = "my-secret-passphrase-change-this"
    context = ["journal-app", 1]

    print("=" * 50)
    print("  Keystash: Rotatable Encrypted Key Store")
    print("=" * 50)

    store = KeyStore.create()
    print(f"\nCreated store {store.uid}")

    entry = {"date": "2026-02-10", "text": "Had a breakthrough idea today."}
    token = store.encrypt(entry, associated_data={"category": "journal"})
    print(f"Encrypted entry: {len(token)} bytes under key {store.latest_key.id}")

    # Rotate: new data uses the new key, old data still decrypts
    store.rotate()
    print(f"Rotated to key {store.latest_key.id} ({len(store)} keys total)")
    print(f"Old entry still decrypts: {store.decrypt(token, associated_data={'category': 'journal'})}")

    # Save the whole store as one opaque blob
    blob = store.save(passphrase, context)
    print(f"\nSaved revision {store.revision}: {len(blob)} bytes")

    # Two devices load the same save and rotate independently
    laptop = KeyStore.load(blob, passphrase, context)
    phone = KeyStore.load(blob, passphrase, context)
    laptop.rotate()
    phone.rotate()
    from_phone = phone.encrypt({"text": "Written on the phone."})

    try:
        laptop.decrypt(from_phone)
    except UnknownKeyError as e:
        print(f"Laptop cannot read phone data yet (missing key {e.key_id})")

    merged = KeyStore.merge(laptop, phone)
    print(f"Merged: {merged.stats()}")
    print(f"Merged store reads phone data: {merged.decrypt(from_phone)}")

    # Wrong passphrase or wrong context both fail the same way
    print("\nAttempting load with wrong passphrase...")
    try:
        KeyStore.load(blob, "wrong-passphrase", context)
        print("  ERROR: Should have failed!")
    except AuthenticationError:
        print("  Correctly rejected: wrong passphrase = wrong key = can't decrypt")


if __name__ == "__main__":
    main()
