#!/usr/bin/env python3
"""
Lab Test API - Database Connectivity Check
Connects with the configured URL, reports the server version and probes
the lab data procedure
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from labtest_api.config import Settings
from labtest_api.modules.field_maps import LAB_TEST_DATA
from labtest_api.services.database import Database, ProcedureCall
from labtest_api.services.labtest_service import LAB_TEST_DATA_PROCEDURE


def check_database():
    """Check connectivity and the lab data procedure"""
    print("="*60)
    print("Lab Test API - Database Check")
    print("="*60)

    settings = Settings()
    database = Database(settings)
    print(f"\nConnecting to database...")
    print(f"URL: {settings.get_masked_database_url()}")

    try:
        version = database.server_version()
        print(f"\n✓ Connected: {(version or 'unknown version').splitlines()[0]}")

        rows = database.call_rows(ProcedureCall(LAB_TEST_DATA_PROCEDURE))
        records = LAB_TEST_DATA.map_all(rows, "lab test")
        print(f"✓ {LAB_TEST_DATA_PROCEDURE} returned {len(rows)} rows ({len(records)} mapped)")

        print("\n" + "="*60)
        print("✓ Database check passed")
        print("="*60)
        return 0

    except Exception as e:
        print(f"\n✗ Database check failed: {e}")
        import traceback
        traceback.print_exc()
        return 1

    finally:
        database.dispose()


if __name__ == "__main__":
    sys.exit(check_database())
