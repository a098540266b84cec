from fleetwatch.monitor.service import main

if __name__ == "__main__":
    main()
