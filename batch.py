from api_client import UpstreamClient, search_subjects
from cache import MetadataCache, url_key
from config import SubjectType
from errors import GatewayError
from session_mgr import SessionManager
from sources import get_sources
from transfer import StreamingProxy, save_stream


def pick_source(processed, quality=None):
    """Return the descriptor matching `quality`, or the first one."""
    if not processed:
        return None
    if quality:
        for src in processed:
            if src["quality"] == quality:
                return src
    return processed[0]


def download_source(proxy: StreamingProxy, source, download_directory="./"):
    stream = proxy.open_stream(source["directUrl"], url_key(source["directUrl"]))
    return save_stream(stream, download_directory)


def main():
    sm = SessionManager()
    client = UpstreamClient(sm)
    cache = MetadataCache()
    proxy = StreamingProxy(cache)

    query = input("Enter title to search: ").strip()
    if not query:
        print("No query entered.")
        return
    print("🔎 Searching…")
    results = search_subjects(client, query)
    items = (results or {}).get("items") or []
    if not items:
        print("No results.")
        return
    print("\nSearch results:")
    for i, item in enumerate(items, 1):
        kind = "series" if item.get("subjectType") == SubjectType.TV_SERIES else "movie"
        print(f"{i:2d}. {item.get('title')}  [{kind}, {item.get('releaseDate', '?')}, id: {item.get('subjectId')}]")
    try:
        idx = int(input("\nSelect number: ")) - 1
        if idx < 0 or idx >= len(items):
            print("Invalid selection.")
            return
    except ValueError:
        print("Invalid input.")
        return
    selected = items[idx]

    season, episode = 0, 0
    if selected.get("subjectType") == SubjectType.TV_SERIES:
        try:
            season = int(input("Season [1]: ").strip() or 1)
            episode = int(input("Episode [1]: ").strip() or 1)
        except ValueError:
            print("Invalid input.")
            return

    content = get_sources(client, cache, str(selected["subjectId"]), season, episode, "http://localhost")
    processed = content.get("processedSources") or []
    if not processed:
        print("⚠️ No downloadable files found.")
        return

    qualities = [src["quality"] for src in processed]
    print("Available qualities:", ", ".join(qualities))
    q_choice = input(f"Enter preferred quality [{qualities[0]}]: ").strip() or qualities[0]
    directory = input("Download directory [./]: ").strip() or "./"

    try:
        download_source(proxy, pick_source(processed, q_choice), directory)
    except GatewayError as e:
        print(f"❌ Download failed: {e.message}")


if __name__ == "__main__":
    main()
