import sys
import shutil
from pathlib import Path

# Add backend to python path
backend_path = Path("backend").resolve()
sys.path.append(str(backend_path))

print(f"Checking imports from: {backend_path}")

try:
    # Importing the app pulls in every router, service, model and schema
    import app.main
    print("✅ Successfully imported app.main")

    from app.core.config import get_settings
    settings = get_settings()
    print(f"✅ Configuration loaded. ENV={settings.env}")
    print(f"✅ Database Config: URL starts with {settings.database_url.split(':')[0]}")

    import sqlalchemy
    if settings.is_sqlite:
        print(f"✅ SQLAlchemy {sqlalchemy.__version__} (sqlite)")
    else:
        try:
            import psycopg2  # noqa: F401
            print(f"✅ SQLAlchemy {sqlalchemy.__version__} and psycopg2 are installed")
        except ImportError as e:
            print(f"❌ Database driver missing: {e}")
            sys.exit(1)

    from app.llm.gemini_client import get_llm_status
    llm = get_llm_status()
    print(f"{'✅' if llm['status'] == 'ready' else '⚠️ '} LLM provider: {llm['provider']} ({llm['status']})")

    if shutil.which(settings.mmdc_bin):
        print(f"✅ Mermaid CLI found: {settings.mmdc_bin}")
    else:
        print(f"⚠️  Mermaid CLI not found ({settings.mmdc_bin}); diagrams will be stored without images")

    if not settings.transcript_source_auth_token:
        print("⚠️  TRANSCRIPT_SOURCE_AUTH_TOKEN is not set; the queue will fail jobs until it is")

    print("\nBackend integrity check passed!")

except ImportError as e:
    print(f"\n❌ Import Error: {e}")
    # Print the full traceback to help identify the missing dependency
    import traceback
    traceback.print_exc()
    sys.exit(1)
except Exception as e:
    print(f"\n❌ Startup Error: {e}")
    import traceback
    traceback.print_exc()
    sys.exit(1)
