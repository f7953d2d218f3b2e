from qastarter.cli import main

main()
