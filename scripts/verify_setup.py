"""Verify that the setup is correct before running a sync."""
import asyncio
import sys
import psycopg2
from redis.asyncio import Redis
from trending.config import Settings, load_env

# Load environment variables from .env or env file
load_env()


def check_environment_variables(settings: Settings):
    """Check required environment variables."""
    print("Checking environment variables...")

    if not settings.github_token:
        print("❌ Missing required environment variable: GITHUB_TOKEN")
        return False

    print("✅ Required environment variables set")
    print(f"   POSTGRES_HOST: {settings.postgres_host}:{settings.postgres_port}")
    print(f"   POSTGRES_DB: {settings.postgres_db}")
    print(f"   REDIS_URL: {'set' if settings.redis_url else 'not set (cache disabled)'}")
    print(f"   CRON_SECRET: {'set' if settings.cron_secret else 'not set'}")
    return True


def check_database_schema(settings: Settings):
    """Check the PostgreSQL connection and that both tables exist."""
    print("\nChecking database connection and schema...")

    try:
        conn = psycopg2.connect(settings.connection_string)
    except Exception as e:
        print(f"❌ Failed to connect to PostgreSQL: {e}")
        return False

    try:
        cursor = conn.cursor()
        cursor.execute("""
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = 'public'
              AND table_name IN ('repositories', 'repository_snapshots')
        """)
        tables = {row[0] for row in cursor.fetchall()}

        if tables != {"repositories", "repository_snapshots"}:
            print("❌ Database schema not found. Run 'python setup_postgres.py' first.")
            return False

        cursor.execute("SELECT COUNT(*) FROM repositories")
        repo_count = cursor.fetchone()[0]
        cursor.execute("SELECT COUNT(*) FROM repository_snapshots")
        snapshot_count = cursor.fetchone()[0]
        cursor.close()
        print("✅ Database schema exists")
        print(f"   Repositories: {repo_count}, snapshots: {snapshot_count}")
        return True
    finally:
        conn.close()


async def _ping_redis(url: str) -> None:
    client = Redis.from_url(url)
    try:
        await client.ping()
    finally:
        await client.aclose()


def check_cache(settings: Settings):
    """Check Redis when a cache is configured."""
    print("\nChecking search cache...")

    if not settings.redis_url:
        print("⚠️  REDIS_URL not set, searches will not be cached")
        return True  # The cache is optional

    try:
        asyncio.run(_ping_redis(settings.redis_url))
        print("✅ Redis is reachable")
        return True
    except Exception as e:
        print(f"❌ Failed to reach Redis: {e}")
        return False


def main():
    """Run all verification checks."""
    print("=" * 60)
    print("Trending Repositories - Setup Verification")
    print("=" * 60)

    settings = Settings.from_env()
    checks = [
        ("Environment Variables", check_environment_variables),
        ("Database Schema", check_database_schema),
        ("Search Cache", check_cache),
    ]

    results = {}
    for name, check_func in checks:
        try:
            results[name] = check_func(settings)
        except Exception as e:
            print(f"❌ {name} check failed with exception: {e}")
            results[name] = False

    print("\n" + "=" * 60)
    print("Verification Summary")
    print("=" * 60)

    for name, passed in results.items():
        status = "✅ PASS" if passed else "❌ FAIL"
        print(f"{status}: {name}")

    if all(results.values()):
        print("\n✅ All checks passed! Ready to sync.")
        print("\nNext steps:")
        print("  python sync_trending.py")
        sys.exit(0)
    else:
        print("\n❌ Some checks failed. Please fix the issues above.")
        print("\nCommon solutions:")
        print("  - Set GITHUB_TOKEN: export GITHUB_TOKEN=your_token")
        print("  - Create schema: python setup_postgres.py")
        sys.exit(1)


if __name__ == "__main__":
    main()
