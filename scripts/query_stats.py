"""Query and display the current trending rankings."""
import sys
from trending.bootstrap import create_query_service, create_storage
from trending.config import Settings, load_env
from trending.domain.models import TimeRange

# Load environment variables from .env or env file
load_env()


def print_section(title: str):
    """Print a section header."""
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)


def display_statistics(top: int = 10):
    """Display the top repositories of every period."""
    storage = create_storage(Settings.from_env())
    service = create_query_service(storage)

    try:
        for time_range in TimeRange:
            page = service.get_trending(time_range, page=1, page_size=top)

            print_section(f"Top {top} {time_range.value.capitalize()} Repositories")
            print(f"Ranked repositories: {page.pagination.total_repos:,}")
            print(f"{'Repository':<40} {'Score':>10} {'Stars':>9}")
            print("-" * 60)
            for entry in page.repos:
                repo = entry.repository
                print(f"{repo.full_name:<40} {entry.trending_score:>10.1f} {repo.stargazers_count:>9,}")

        print_section("Sync Information")
        print(f"Last updated: {page.last_updated.isoformat()}")
    finally:
        storage.close()

    print("\n" + "=" * 60)
    print("Query completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    try:
        display_statistics()
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)
