import ttkbootstrap as ttk

import config
from gui import SparkleController
from logger_setup import setup_logging

if __name__ == "__main__":
    settings = config.load_settings()
    setup_logging(settings["log_level"])

    # "darkly", "superhero", "solar", "cyborg" are good dark themes
    root = ttk.Window(themename="darkly")
    app = SparkleController(root, settings)
    root.mainloop()
