import gradio as gr

from json_recipe.config import configure_logging, settings
from json_recipe.handlers import (
    add_condition_handler,
    apply_recipe_handler,
    apply_transform_handler,
    compute_document_count_text,
    delete_property_handler,
    export_recipe_handler,
    insert_property_handler,
    load_apply_dataset,
    load_build_dataset,
    load_recipe_handler,
    load_recipe_into_session_handler,
    preview_all_handler,
    preview_apply_handler,
    rename_property_handler,
    replace_structural_handler,
    start_session,
    transform_choices,
    update_params_handler,
)

configure_logging(settings)

# --- UI Definition ---
with gr.Blocks(title=settings.app_name) as demo:
    gr.Markdown(f"# {settings.app_name}")
    gr.Markdown("Record edits on one JSON document as a recipe, then replay the recipe on other documents.")

    # State
    build_data_state = gr.State()
    session_state = gr.State()
    apply_data_state = gr.State()
    apply_recipe_state = gr.State()

    with gr.Tab("Build Recipe"):
        with gr.Row():
            # Left Panel: Input & Editing
            with gr.Column(scale=1):
                gr.Markdown("### 1. Import")
                build_file = gr.File(label="Upload JSON File", file_types=[".json"])
                build_status = gr.Textbox(label="Status", interactive=False)
                build_root = gr.Dropdown(
                    label="Data Root Path",
                    choices=["(root)"],
                    value="(root)",
                    allow_custom_value=True,
                    interactive=True,
                )
                template_index = gr.Number(label="Template element (blank = most complete)", precision=0)
                start_btn = gr.Button("Start Editing", variant="primary")

                gr.Markdown("### 2. Edit")
                property_selector = gr.Dropdown(label="Property", choices=[], interactive=True)
                with gr.Tab("Transform"):
                    transform_selector = gr.Dropdown(label="Transform", choices=[], interactive=True)
                    transform_params = gr.Textbox(label="Params (comma separated or JSON list)")
                    with gr.Row():
                        transform_btn = gr.Button("Apply Transform")
                        replace_btn = gr.Button("Replace Structural Transform")
                    transform_index = gr.Number(label="Transform # (for param updates)", value=0, precision=0)
                    update_params_btn = gr.Button("Update Params")
                with gr.Tab("Condition"):
                    condition_selector = gr.Dropdown(label="Condition", choices=[], interactive=True)
                    condition_params = gr.Textbox(label="Params")
                    condition_btn = gr.Button("Add Condition")
                with gr.Tab("Rename / Delete"):
                    new_key = gr.Textbox(label="New name")
                    rename_btn = gr.Button("Rename")
                    delete_btn = gr.Button("Delete", variant="stop")
                with gr.Tab("Insert"):
                    insert_key = gr.Textbox(label="Key")
                    insert_value = gr.Textbox(label="Value (JSON or text)")
                    insert_btn = gr.Button("Insert under selected property")
                    insert_root_btn = gr.Button("Insert at top level")

            # Right Panel: Preview & Recipe
            with gr.Column(scale=1):
                gr.Markdown("### 3. Preview")
                working_view = gr.JSON(label="Template element after edits")
                preview_btn = gr.Button("Preview All Records")
                all_preview = gr.JSON(label=f"Preview (first {settings.preview_limit} records)")

                gr.Markdown("### 4. Recipe")
                recipe_view = gr.JSON(label="Recipe")
                recipe_filename = gr.Textbox(label="Recipe Filename (optional)", placeholder="recipe")
                export_btn = gr.Button("Export Recipe", variant="primary")
                recipe_download = gr.File(label="Download Recipe")
                recipe_upload = gr.File(label="Load Existing Recipe", file_types=[".json"])

        session_outputs = [session_state, property_selector, working_view, recipe_view, build_status]

        build_file.upload(
            fn=load_build_dataset,
            inputs=[build_file],
            outputs=[build_data_state, build_root, build_status],
        )

        start_btn.click(
            fn=start_session,
            inputs=[build_data_state, build_root, template_index],
            outputs=session_outputs,
        )

        property_selector.change(
            fn=transform_choices,
            inputs=[session_state, property_selector],
            outputs=[transform_selector, condition_selector],
        )

        transform_btn.click(
            fn=apply_transform_handler,
            inputs=[session_state, property_selector, transform_selector, transform_params],
            outputs=session_outputs,
        )
        replace_btn.click(
            fn=replace_structural_handler,
            inputs=[session_state, property_selector, transform_selector, transform_params],
            outputs=session_outputs,
        )
        update_params_btn.click(
            fn=update_params_handler,
            inputs=[session_state, property_selector, transform_index, transform_params],
            outputs=session_outputs,
        )
        condition_btn.click(
            fn=add_condition_handler,
            inputs=[session_state, property_selector, condition_selector, condition_params],
            outputs=session_outputs,
        )
        rename_btn.click(
            fn=rename_property_handler,
            inputs=[session_state, property_selector, new_key],
            outputs=session_outputs,
        )
        delete_btn.click(
            fn=delete_property_handler,
            inputs=[session_state, property_selector],
            outputs=session_outputs,
        )
        insert_btn.click(
            fn=insert_property_handler,
            inputs=[session_state, property_selector, insert_key, insert_value],
            outputs=session_outputs,
        )
        insert_root_btn.click(
            fn=lambda session, key, value: insert_property_handler(session, None, key, value),
            inputs=[session_state, insert_key, insert_value],
            outputs=session_outputs,
        )

        preview_btn.click(fn=preview_all_handler, inputs=[session_state], outputs=[all_preview])

        export_btn.click(
            fn=export_recipe_handler,
            inputs=[session_state, recipe_filename],
            outputs=[recipe_download, build_status],
        )
        recipe_upload.upload(
            fn=load_recipe_into_session_handler,
            inputs=[session_state, recipe_upload],
            outputs=session_outputs,
        )

    with gr.Tab("Apply Recipe"):
        gr.Markdown("### 1. Upload dataset and recipe")
        with gr.Row():
            with gr.Column():
                apply_file = gr.File(label="Dataset", file_types=[".json"])
                apply_status = gr.Textbox(label="Dataset Status", interactive=False)
                apply_root = gr.Dropdown(
                    label="Data Root Path",
                    choices=["(root)"],
                    value="(root)",
                    allow_custom_value=True,
                    interactive=True,
                )
                document_count = gr.Textbox(label="Document Count", interactive=False)
            with gr.Column():
                apply_recipe_file = gr.File(label="Recipe", file_types=[".json"])
                recipe_status = gr.Textbox(label="Recipe Status", interactive=False)

        gr.Markdown("### 2. Apply & export")
        output_filename = gr.Textbox(label="Output Filename (optional)", placeholder="transformed")
        load_preview_btn = gr.Button("Load Preview")
        apply_btn = gr.Button("Apply & Download", variant="primary")
        apply_download = gr.File(label="Transformed Result")
        apply_message = gr.Textbox(label="Status", interactive=False)
        apply_preview = gr.JSON(label=f"Preview (first {settings.preview_limit} records)")

        apply_file.upload(
            fn=load_apply_dataset,
            inputs=[apply_file],
            outputs=[apply_data_state, apply_root, apply_status, document_count],
        )

        apply_root.change(
            fn=compute_document_count_text,
            inputs=[apply_data_state, apply_root],
            outputs=[document_count],
        )

        apply_recipe_file.upload(
            fn=load_recipe_handler,
            inputs=[apply_recipe_file],
            outputs=[apply_recipe_state, recipe_status],
        )

        load_preview_btn.click(
            fn=preview_apply_handler,
            inputs=[apply_data_state, apply_recipe_state, apply_root],
            outputs=[apply_preview],
        )

        apply_btn.click(
            fn=apply_recipe_handler,
            inputs=[apply_data_state, apply_recipe_state, apply_root, output_filename],
            outputs=[apply_download, apply_message, apply_preview],
        )

if __name__ == "__main__":
    demo.launch(debug=settings.debug)
