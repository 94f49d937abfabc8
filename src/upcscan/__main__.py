from upcscan.gui.main import main

main()
