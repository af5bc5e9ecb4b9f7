"""The check and audit pipelines and the tool output parsers behind them."""