#!/usr/bin/env python3
"""
Complete Session Demo: Client Details → Transformer Data → Confirmation → Save → Export

Shows the full workflow:
1. Fill in client details (3 transformers, 2 with OLTC)
2. Edit transformer and OLTC data
3. Confirm, save to an in-memory store
4. Export JSON and XLSX files
"""

import asyncio
import logging

from tsr.config import configure_logging, load_settings
from tsr.export import export_excel, export_filename, export_json
from tsr.persistence import InMemoryGateway
from tsr.submission import SaveSubmission
from tsr.wizard import Wizard


def main():
    configure_logging(logging.INFO)
    settings = load_settings()

    print("=" * 80)
    print("TRANSFORMER SERVICING SESSION DEMO")
    print("=" * 80)

    # =========================================================================
    # STEP 1: Client details
    # =========================================================================
    print("\n1. CLIENT DETAILS...")
    wizard = Wizard()
    wizard.edit_client(
        client_name="Riverside Textiles",
        client_address="12 Mill Road",
        pincode="641001",
        tr_number="TR-2041",
        no_of_transformers="3",
        no_of_transformers_with_oltc="2",
    )
    info = wizard.state.client_info
    print(f"   ✓ Transformers: {info.no_of_transformers} "
          f"({info.no_of_transformers_with_oltc} with OLTC, "
          f"{info.no_of_transformers_without_oltc} without)")
    violations = wizard.next()
    for v in violations:
        print(f"   ✗ {v.field}: {v.message}")
    print(f"   ✓ Progress: {wizard.progress:.0f}%")

    # =========================================================================
    # STEP 2: Transformer data
    # =========================================================================
    print("\n2. TRANSFORMER DATA...")
    wizard.edit_transformer(0, transformer_make="Kirloskar", capacity="500 kVA", acidity_value="0.05")
    wizard.edit_oltc(0, oltc_type="OLTC-17", oltc_rated_current="300")
    wizard.toggle_oltc(2, True)
    for t in wizard.state.transformers:
        print(f"   ✓ {t.transformer_id}: make={t.transformer_make or '-'} OLTC={t.has_oltc}")
    wizard.next()
    print(f"   ✓ Progress: {wizard.progress:.0f}%")

    # =========================================================================
    # STEP 3: Save
    # =========================================================================
    print("\n3. SAVING...")
    record = wizard.record
    submission = SaveSubmission(InMemoryGateway(), timeout=settings.save_timeout)
    outcome = asyncio.run(submission.submit(record))
    print(f"   ✓ Status: {outcome.status.value} id={outcome.record_id}")

    # =========================================================================
    # STEP 4: Export
    # =========================================================================
    print("\n4. EXPORTING...")
    for extension, content in (("json", export_json(record)), ("xlsx", export_excel(record))):
        filename = export_filename(extension)
        with open(filename, "wb") as f:
            f.write(content)
        print(f"   ✓ Saved {filename} ({len(content)} bytes)")

    print("\n" + "=" * 80)
    print("SESSION COMPLETE!")
    print("=" * 80)


if __name__ == "__main__":
    main()
