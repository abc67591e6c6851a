import sys
from config import settings
from scripts.run_market_close import main as run_market_close

def main():
    """
    HabitStock Entry Point.
    Currently configured to run the end-of-day settlement.
    """
    print("📈 HabitStock - Habit Price Engine Initializing...")
    print(f"📂 Store File: {settings.STORE_FILE}")

    # Settle every user in the local store for today
    return run_market_close([])

if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n🛑 Execution interrupted by user.")
        sys.exit(0)
    except Exception as e:
        print(f"\n🔥 Fatal System Error: {e}")
        sys.exit(1)
