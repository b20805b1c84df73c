from pierre_diffs.entry_points import main

main()
