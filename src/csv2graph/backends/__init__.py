"""
Computation backends. Each one exposes
``generate_plot(csv_text, options_json) -> {"base64Image": ...} | {"error": ...}``.
"""
