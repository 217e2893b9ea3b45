from videolab.cli import main

main()
