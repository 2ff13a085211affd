from predictiondao.cli import main

main()
